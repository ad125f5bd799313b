# Sample knowledge-base documents for demos and tests

SAMPLE_STATEMENT = """
Monthly Statement for account ending in 4821. Statement period 03/01/2024 to 03/31/2024.
On 2024-03-04 a payment of $750.00 was made to Northwind Furniture (CARD 8455).
On 2024-03-09 a grocery purchase of $100.00 was charged at Fresh Market.
On 2024-03-15 a transfer of $1,234.56 was sent to savings account xxxx55210.
Interest rate on the balance is 19.99% APR. Questions? Email support@examplebank.com or call +1 (555) 123-4567.
"""

SAMPLE_INVOICE = """
Invoice INV-2024-118 from Acme Consulting, issued March 20, 2024.
Consulting services for the data migration project: 32 hours at $150.00 per hour.
Total due: $4,800.00 within 30 days. Late payments accrue 1.5% monthly interest.
Remit payment to billing@acme-consulting.com. Reference the invoice number on every payment.
"""

SAMPLE_MEETING_NOTES = """
# Quarterly Planning Meeting

Held on 04/02/2024 at 10:30 AM with the finance and engineering teams.

## Budget

The team agreed to cap cloud spending at $12,000 per month. Infrastructure costs rose 8% last quarter.
Finance will review every invoice above $5,000 before approval.

## Roadmap

The data migration project must finish within 6 weeks. The 3rd milestone covers reporting dashboards.
Engineering will publish progress at https://intranet.example.com/migration every Friday.

## Action Items

Send the revised budget to cfo@example.com by 2024-04-10. Schedule the follow-up meeting for 2 weeks out.
"""

SAMPLE_DOCUMENTS = {
    "statement": SAMPLE_STATEMENT,
    "invoice": SAMPLE_INVOICE,
    "meeting_notes": SAMPLE_MEETING_NOTES,
}
