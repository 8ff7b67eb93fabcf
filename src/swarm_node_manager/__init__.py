"""
swarm_node_manager
- Activates Docker Swarm nodes at boot and drains them at shutdown.
"""

__version__ = "2.3.0"
