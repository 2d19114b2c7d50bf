"""
nnlab: a small neural-network training engine on numpy.
"""
