"""WLD Actor module: skeleton and animation reconstruction.

Builds bone hierarchies from HierarchicalSpriteDef DAG arrays and discovers
the animations stored for them across the whole document.
"""
