"""Wallet session and transaction orchestration for on-chain crowdfunding."""

__version__ = "0.1.0"
