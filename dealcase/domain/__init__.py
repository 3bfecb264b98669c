"""Domain layer (pure logic).

- Keep game rules, prize economics and state guards here.
- Avoid I/O: no DB sessions, no HTTP/FastAPI, no web3.
- Randomness is injectable (pass an ``rng`` with the ``random.Random`` API).
"""
