import sys

from forecast_ingest.lifecycle import main


if __name__ == "__main__":
    sys.exit(main())
