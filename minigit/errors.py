#errors raised by the object database; the cli turns them into messages and exit codes

class MinigitError(Exception):
    pass

class ObjectNotFound(MinigitError):
    def __init__(self, oid):
        super().__init__(f'object not found: {oid}')
        self.oid = oid

#bad frame header, length mismatch, truncated tree entry, bad commit header, zlib failure
class CorruptObject(MinigitError):
    pass

class ObjectTypeMismatch(CorruptObject):
    def __init__(self, oid, expected, actual):
        super().__init__(f'{oid}: expected {expected} got {actual}')
        self.oid = oid
        self.expected = expected
        self.actual = actual

class InvalidIdFormat(MinigitError, ValueError):
    def __init__(self, value):
        super().__init__(f'not a valid object id: {value!r}')
        self.value = value

#any filesystem failure other than a missing object
class IoFailure(MinigitError):
    pass
