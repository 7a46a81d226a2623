"""Broker integrations (Questrade)"""
