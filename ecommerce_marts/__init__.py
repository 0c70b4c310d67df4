"""
E-Commerce Analytics Marts

Layered transformation of raw customer, order and product records into
customer segments, daily sales facts and a sales summary report.
"""

__version__ = "1.0.0"
