"""
Multi-criteria isochrone routing for sailing boats.

Three-layer architecture:
- core: Positions, routes, polars, wind/current fields, land, criteria
- algorithms: Isochrone expansion, dominance filtering, route reconstruction
- app: Configuration, parallel expansion and the routing application

Examples
--------
>>> from sail_routing.core import PolarTable, UniformField, LandMask
>>> from sail_routing.app import RoutingApp, RoutingConfig, JourneyConfig
"""

__version__ = "2025dev"
