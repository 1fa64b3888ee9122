"""
# Iffstruct, the IFF/AIFF codec.

An IFF file is a sequence of self-describing chunks: each one has a type code,
a size and a payload whose layout depends on the type. This package describes
those layouts declaratively

    class MarkerChunk(IffChunk):
        ck_id       = fields.IDField(default=b'MARK')
        num_markers = fields.StructField('H')
        markers     = fields.ArrayField(Marker, n=Dependency('.num_markers'))

and the same declaration drives both directions:

 1. unpack(): read the binary data and build a high-level representation
    of it; each field knows how many bytes it needs.

 2. pack(): encode the high-level representation into binary data, field
    after field in declaration order.

Chunks read from a stream or obtained from a builder are values: they are
validated (declared sizes against real sizes, counters against the number of
elements) and then frozen.

A chunk whose type is not known is kept as it is, so reading and writing
back a file gives the very same bytes.
"""
