"""
BrokerForce API application.
"""
