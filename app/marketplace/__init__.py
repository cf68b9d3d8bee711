"""
Marketplace app: opportunities, applications and contracts.

These rows are created by upstream CRUD flows in their initial states
(open / applied / draft). The settlement app is the only writer that
moves them forward in response to payment events.
"""
