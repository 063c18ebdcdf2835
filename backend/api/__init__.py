"""REST API layer - ports, motion encoding, transfer sessions"""
