"""Domain layer: Questrade data records"""
