"""
Decomposer Service package for the TinySteps backend.

The decomposer serves the mobile client directly, providing:
- Device identity: anonymous registration and signed bearer tokens
- Task decomposition: ADHD-friendly steps from the generation provider
- Quota: a free-tier daily allowance, unlimited for premium devices
- Caching: normalised-task response cache in the key-value store
"""
