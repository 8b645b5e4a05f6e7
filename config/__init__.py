"""
Configuration models and loader for the CDK application.
"""
