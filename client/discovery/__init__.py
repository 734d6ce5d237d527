"""
Discovery module for finding the power service on the local network.

Handles:
- Candidate address generation for likely subnets
- Bounded, batched health probing
- Progressive result reporting
"""
