"""Shared utilities for qwire"""
