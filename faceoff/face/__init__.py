"""Face detection building blocks (anchors/decoder/nms/crop/detector).

Each stage is a plain function or a small class so the pipeline can sequence
them explicitly and tests can exercise them without a model.
"""
