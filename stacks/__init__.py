"""
CDK stacks and the pipeline stages deploying them.
"""
