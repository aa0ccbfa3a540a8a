"""
Bookings app.

Holds the billable sources the payments engine settles against: service
bookings between a customer and a professional, and product orders. The
booking lifecycle itself is driven elsewhere; payments only reads it.
"""
