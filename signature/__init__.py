"""
Core Signature module.

Captures where signatures, stamps and QR markers sit on a document surface
as zoom-independent placements, renders them as a live overlay, and burns
them into the final artifact (PDF overlay merge or positioned HTML).
"""
