"""
billing_batch -- Job-trigger scheduling for the reconciliation core.

An explicit scheduler with injected configuration: a time-of-day interval
table, a clock and named job callables.  Nothing in billing_kernel,
billing_engines or billing_services imports from billing_batch.
"""
