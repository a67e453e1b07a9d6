from .progress import ProgressEvent, ProgressPublisher, Stage, StageState
