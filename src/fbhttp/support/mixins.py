def quote(val):
    """
    >>> quote('GET')
    "'GET'"
    >>> quote(None)
    'None'
    """
    return "'" + str(val) + "'" if val is not None else "None"


class StringerMixin:
    """ Renders the class name followed by the public attributes in key order. """

    def __str__(self):
        return self.__class__.__name__ + ':' + self._sorted_items_string()

    def _sorted_items_string(self):
        return "{" + ", ".join(["'" + key.lstrip('_') + "': " + quote(val)
                                for key, val in sorted(self.__dict__.items())]) + "}"


class CommonEqualityMixin(object):
    """ Equality for value objects: same class and the same attribute values. """

    def __eq__(self, other):
        return isinstance(other, self.__class__) and self.__dict__ == other.__dict__

    def __ne__(self, other):
        return not self.__eq__(other)
