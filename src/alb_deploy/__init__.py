"""
Bind versioned Lambda functions to a shared application load balancer.

Publishes a function version per (version, stage), grants the load balancer
invoke rights, registers the alias in a target group and routes a path to it.
"""

__version__ = "0.1.0"
