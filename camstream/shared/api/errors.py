E_INTERNAL = 'E_INTERNAL'
E_INVALID_PARAMS = 'E_INVALID_PARAMS'
