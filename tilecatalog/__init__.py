"""
A catalog of z/x/y map tiles: a hierarchy index over the tile records,
a sequential batch upload queue and a cascading delete resolver.
"""
