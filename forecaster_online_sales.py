#!/usr/bin/env python3
"""
Model comparison and 12-month forecast for the monthly online-shopping transaction series.

Usage
-----
    python forecaster_online_sales.py --help
    python forecaster_online_sales.py --series-csv data/online_sales.csv
    python forecaster_online_sales.py --series-csv data/online_sales.csv \
        --train 2017-01:2021-12 --test 2022-01:2022-12 --selection lowest_test_rmse

Modules
-------
The code is organized in sales_forecaster_src/; see its package docstring for
the module layout. Defaults live in config/default.yaml.
"""

import sys

if __name__ == "__main__":
    # Delegate to the package implementation
    from sales_forecaster_src.main import main
    sys.exit(main())
