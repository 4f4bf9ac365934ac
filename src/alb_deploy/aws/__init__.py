"""
AWS components for binding Lambda functions to an application load balancer.

Each component receives its boto3 clients explicitly so tests can pass fakes.
"""
