"""
SketchLab - turn an image or an idea into runnable p5.js sketches.
"""
