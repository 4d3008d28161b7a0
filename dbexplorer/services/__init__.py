"""State containers and engine adapters for the explorer core"""
