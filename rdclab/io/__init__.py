from .trajectory import Frame, TrajectoryFormatError, iter_frames
