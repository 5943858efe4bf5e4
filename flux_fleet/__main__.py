"""Run the flux-fleet command line tool with `python -m flux_fleet`."""

from flux_fleet.tool.flux_fleet import main

if __name__ == "__main__":
    main()
