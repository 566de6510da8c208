"""
devnet-chaos - chaos experiment planner and runner for ephemeral Ethereum devnets
"""
__version__ = "0.1.0"
