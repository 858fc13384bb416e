"""
mlservice - ML Service Strategy Package

This package turns heterogeneous machine learning backends into uniform
service units:
- runtime: Service strategy base class, measurement stores, dispatch policy
- observability: Structured logging and Prometheus metrics
- server: Settings and the outer driver
"""

__version__ = "1.0.0"
