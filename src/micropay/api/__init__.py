"""HTTP surface for the voice micropayment agent."""
