"""Constant product liquidity pool program and its local runtime."""
