"""covid_report package initializer.

This package contains the data pipeline behind the JHU CSSE COVID-19
report.  Modules include source retrieval, reshaping, joining,
aggregation and the cases/deaths regression.  See individual module
docstrings for details.
"""
