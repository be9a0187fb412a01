"""Command-line interface for PartShare"""
