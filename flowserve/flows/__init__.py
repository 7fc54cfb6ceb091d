# flowserve/flows package
# Example flows that can be served with `flowserve --flow <module>:<attribute>`.
