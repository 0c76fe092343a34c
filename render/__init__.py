"""
Rendering SVG dei contatori.

- Catalogo temi e glifi (catalog.py)
- Parametri validati (request.py)
- Compositore SVG (compositor.py)
"""
