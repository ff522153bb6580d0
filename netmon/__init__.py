# ============================================================================
# netmon/__init__.py
# Package Marker for the Monitoring Console Core
# ============================================================================
#
# PURPOSE:
# Headless monitoring/aggregation layer of the network scanner console.
#
# SUBPACKAGES:
# - base: configuration and local scanner settings
# - data: typed backend records and closed enumerations
# - net: the backend command gateway
# - monitoring: monitoring session controller and its event feed
# - analytics: dashboard aggregation, alert classification, security grading
# - toolkit: ping / port scan / MAC lookup helpers
# - server: optional FastAPI surface over the console
#
# ============================================================================

__version__ = "0.3.0"
