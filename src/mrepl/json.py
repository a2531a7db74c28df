''' Wrapper module to provide the equivalent of :func:`json.loads` and
    :func:`json.dumps` for the rest of mrepl, backed by msgspec.
'''

import msgspec


# The msgspec 'encode' operation returns bytes; everything in mrepl that
# calls dumps() expects bytes in return, the transport puts them directly
# on the wire.

encoder = msgspec.json.Encoder()
decoder = msgspec.json.Decoder()

dumps = encoder.encode
loads = decoder.decode


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
