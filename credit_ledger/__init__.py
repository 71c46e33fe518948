"""
El Granito Credit Ledger

Consumer credits repaid in fixed monthly installments: French amortization,
payment schedules, card settlement of installments, balances, delinquency
and a hash-chained audit trail, all with Decimal money.
"""

__version__ = "1.0.0"
