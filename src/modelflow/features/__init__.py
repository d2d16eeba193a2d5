"""
Feature layer: declarative cleaning rules and the table transformer.
"""
