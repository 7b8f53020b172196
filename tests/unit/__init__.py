"""
Unit tests for the storage request pipeline.

Test individual components in isolation:
- Pipeline (phase ordering, dependencies, composition)
- Retry engine and strategies
- Storage dual-endpoint retry policy
- Standard and authentication policies
- httpx transport (error mapping, cancellation)
"""
