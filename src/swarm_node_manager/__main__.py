import sys

from swarm_node_manager.cli.entrypoint import main

sys.exit(main())
