"""
Campaign Service Contract Module

data_contract.py: re-exports the service models and provides the test data
factory every campaign test layer builds its fixtures from.
"""
