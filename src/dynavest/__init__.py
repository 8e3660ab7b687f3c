"""Risk-tiered DeFi portfolio construction and batched execution."""
