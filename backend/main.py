"""
Main Application Entry Point

This script runs the travel-time heatmap command line without installing the
package, e.g.:

    python backend/main.py fetch "55.70,37.40" "55.80,37.50" --dst "55.75,37.45" -o results.json
    python backend/main.py render results.json --max-duration 30 -o heatmap.kml

After `pip install .` the same commands are available as `transit-heatmap`.
"""
import sys

from transit_heatmap.interface.cli import main

if __name__ == "__main__":
    sys.exit(main())
