"""Command-line interface for acres-collector"""
