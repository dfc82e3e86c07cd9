"""Núcleo electoral: modelos, cifrado, libro de votos, telemetría y escrutinio.

English: Election core: models, crypto, ledger, telemetry and tally.
"""
